from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class LeadStep1:
    id: str = ""
    createdAt: str = ""
    email: str = ""
    callTypes: List[str] = field(default_factory=list)
    avoidedCallText: Optional[str] = None
    otherText: Optional[str] = None
    # Optional on the first pass; the resume flow asks for them again
    company: Optional[str] = None
    descriptionText: Optional[str] = None

    # Attribution
    utmSource: Optional[str] = None
    utmCampaign: Optional[str] = None
    utmAdset: Optional[str] = None
    utmAd: Optional[str] = None

    # none/queued/sent/failed/logged
    emailStatus: str = "none"


@dataclass
class LeadStep2:
    id: str = ""
    createdAt: str = ""
    step1Id: str = ""
    company: str = ""
    descriptionText: str = ""
    audioPath: Optional[str] = None
    transcriptText: Optional[str] = None
    phone: Optional[str] = None
