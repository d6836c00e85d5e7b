# User-facing copy. Error strings are shown verbatim to end users.

COPY = {
    # Intake (category / company+details / email)
    "categoryTitle": "What call are you putting off?",
    "categorySubtitle": "Pick a category, or type your own.",
    "categoryPlaceholder": 'Example: "cancel my gym membership"',
    "categoryError": "Please choose a category or type your own.",
    "companyDetailsTitle": "Which company, and what's going on?",
    "companyDetailsSubtitle": "Both optional. Skip if you'd rather explain later.",
    "emailTitle": "Where should we send next steps?",
    "emailPlaceholder": "name@email.com",
    "emailError": "Please enter a valid email.",
    "doneTitle": "Check your email for next steps.",
    "doneSubtext": "We just sent you a link to finish your request.",

    # Resume flow (after the email link)
    "companyTitle": "Which company is this call with?",
    "companyError": "Company is required",
    "detailsTitle": "Tell us what's going on.",
    "detailsPlaceholder": "Type a brief description here…",
    "detailsError": "Please describe what you need.",
    "transcriptLabel": "Transcript",
    "transcriptHelper": "Edit if needed.",
    "transcriptionFailed": "Transcription failed. Please try again or use the Type option.",
    "microphoneDenied": "Unable to access microphone. Please use the Type option.",
    "completionTitle": "Submitted",
    "completionSubtext": "We'll follow up over email.",
    "completionButton": "Submit another request",

    # Verification
    "verifySent": "Check your inbox for a 6-digit code.",
    "verifyDone": "Email verified! Thanks for confirming. We'll be in touch soon.",

    # Shared
    "invalidLink": "This link is invalid or has expired. Please start over.",
    "keyboardHint": "Press Enter to continue",
    "genericError": "Something went wrong. Please try again.",

    # Continuation email (locked copy)
    "emailSubject": "One quick step so we can handle your call",
    "emailHeadline": "One quick step so we can handle your call",
    "emailBody": "Thanks for reaching out. We just need a few more details to get your call handled.",
    "emailButton": "Complete 2-minute intake",
    "emailExpiry": "This link expires in 7 days.",

    # Verification email
    "verifySubject": "Verify your email",
    "verifyBody": "Use the code below, or click the button, to confirm your email and complete your submission.",
    "verifyButton": "Verify my email",
    "verifyExpiry": "This link expires in 10 minutes.",
}

# Call type categories (exact order)
CALL_CATEGORIES = (
    "Book or reschedule",
    "Cancel something",
    "Billing issue or dispute",
    "Status tracking",
    "Account change",
    "Fix a mistake",
    "Escalate to a human",
    "Other",
)

COMMON_COMPANIES = (
    "Aetna", "Allstate", "Amazon", "American Express", "Anthem", "AT&T",
    "Bank of America", "Blue Cross Blue Shield", "Capital One", "Chase", "Cigna",
    "Comcast", "CVS", "Delta Airlines", "Discover", "Duke Energy", "Fidelity",
    "GEICO", "Humana", "Kaiser Permanente", "Medicare", "MetLife", "Netflix",
    "PG&E", "Progressive", "Social Security", "Spectrum", "State Farm",
    "T-Mobile", "UnitedHealthcare", "USAA", "Verizon", "Walgreens",
    "Wells Fargo", "Xfinity",
)
