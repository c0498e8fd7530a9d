"""
Application Constants Configuration
"""

from typing import List


# Job lifecycle
JOB_STATUS_PENDING: str = "pending"
JOB_STATUS_PROCESSING: str = "processing"
JOB_STATUS_COMPLETE: str = "complete"
JOB_STATUS_FAILED: str = "failed"
TERMINAL_STATUSES: List[str] = [JOB_STATUS_COMPLETE, JOB_STATUS_FAILED]

# Polling
POLL_INTERVAL_S: int = 30
POLL_DEADLINE_S: int = 15 * 60

# Failure reasons recorded on the job
TIMEOUT_REASON: str = "Generation timed out - no response from AI service"
PROVIDER_FAILED_REASON: str = "Processing failed on provider"

# Provider input
CHARACTER_ORIENTATION: str = "video"

# Artifacts
ARTIFACT_KEY_PREFIX: str = "generations"
ARTIFACT_CONTENT_TYPE: str = "video/mp4"
ARTIFACT_EXTENSION: str = "mp4"

# Aspect ratio options (display hint carried on the record)
ASPECT_RATIO_OPTIONS: List[str] = ["fill", "fit", "original"]
DEFAULT_ASPECT_RATIO: str = "fill"

# Notification
EMAIL_SUBJECT: str = "Your video is ready!"
