"""Application constants."""

# Recurring workflow actions never produce more occurrences than this
MAX_RECURRING_OCCURRENCES = 30

# Round-robin task assignment counts tasks created in this trailing window
ROUND_ROBIN_WINDOW_DAYS = 30

# Task defaults for workflow-created tasks
DEFAULT_TASK_TITLE = "New Task"
DEFAULT_TASK_DUE_DAYS = 1

# Email fallbacks when a workflow action carries no subject/body
DEFAULT_EMAIL_SUBJECT = "Your information request has been processed"
DEFAULT_EMAIL_BODY_LINES = (
    "Hi {{patient.first_name}}",
    "",
    "We wanted to let you know that your request for information has now been processed.",
    "",
    "Deal: {{deal.title}}",
    "Pipeline: {{deal.pipeline}}",
    "",
    "Best regards,",
    "Your clinic team",
)
