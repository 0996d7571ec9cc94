# crosspost/models/enums.py
from enum import Enum


class Platform(str, Enum):
    tiktok = "tiktok"
    youtube = "youtube"
    x = "x"
    linkedin = "linkedin"
    instagram = "instagram"
    facebook_page = "facebook_page"
    google_business_profile = "google_business_profile"


class PostJobStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


class ResultStatus(str, Enum):
    pending = "pending"
    success = "success"
    failed = "failed"
