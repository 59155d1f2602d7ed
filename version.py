# Exam Review Client - Build Version

BUILD_VERSION = "1.0.0"
BUILD_DATE = "2026-10-19"
BUILD_ID = "review-override-upload"

# Changes in this build:
# - Submission review with clamped question navigation
# - Per-grade override staging with independent in-flight requests
# - Configurable post-trigger refresh (fixed delay or backoff poll)
# - Batch upload with stable per-file ids and a filename manifest
