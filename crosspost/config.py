# crosspost/config.py
import os

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+asyncpg://localhost/crosspost")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# used for JWT bearer auth and, unless overridden, for signing OAuth state
SECRET_KEY = os.getenv("SECRET_KEY", "change_me_now")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
OAUTH_STATE_SECRET = os.getenv("OAUTH_STATE_SECRET") or SECRET_KEY
OAUTH_TOKEN_KEY = os.getenv("OAUTH_TOKEN_KEY")  # base64 Fernet key, set in prod

# where callbacks send the browser back to
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")

MEDIA_UPLOAD_ROOT = os.getenv("MEDIA_UPLOAD_ROOT", os.path.join(os.getcwd(), "storage", "uploads"))
MEDIA_PUBLIC_BASE_URL = os.getenv("MEDIA_PUBLIC_BASE_URL")

PLATFORM_HTTP_TIMEOUT = float(os.getenv("PLATFORM_HTTP_TIMEOUT", "60"))

# TikTok
TIKTOK_CLIENT_KEY = os.getenv("TIKTOK_CLIENT_KEY")
TIKTOK_CLIENT_SECRET = os.getenv("TIKTOK_CLIENT_SECRET")
TIKTOK_REDIRECT_URI = os.getenv("TIKTOK_REDIRECT_URI")
TIKTOK_SCOPES = os.getenv("TIKTOK_SCOPES", "user.info.basic,video.publish")
TIKTOK_PRIVACY_LEVEL = os.getenv("TIKTOK_PRIVACY_LEVEL", "SELF_ONLY")

# YouTube
YOUTUBE_CLIENT_ID = os.getenv("YOUTUBE_CLIENT_ID")
YOUTUBE_CLIENT_SECRET = os.getenv("YOUTUBE_CLIENT_SECRET")
YOUTUBE_REDIRECT_URI = os.getenv("YOUTUBE_REDIRECT_URI")
YOUTUBE_SCOPES = os.getenv(
    "YOUTUBE_SCOPES",
    "https://www.googleapis.com/auth/youtube.upload https://www.googleapis.com/auth/youtube.readonly",
)
YOUTUBE_PRIVACY_STATUS = os.getenv("YOUTUBE_PRIVACY_STATUS", "private")

# X (OAuth 1.0a)
X_CONSUMER_KEY = os.getenv("X_CONSUMER_KEY")
X_CONSUMER_SECRET = os.getenv("X_CONSUMER_SECRET")
X_CALLBACK_URL = os.getenv("X_CALLBACK_URL")

# LinkedIn
LINKEDIN_CLIENT_ID = os.getenv("LINKEDIN_CLIENT_ID")
LINKEDIN_CLIENT_SECRET = os.getenv("LINKEDIN_CLIENT_SECRET")
LINKEDIN_REDIRECT_URI = os.getenv("LINKEDIN_REDIRECT_URI")
LINKEDIN_SCOPES = os.getenv(
    "LINKEDIN_SCOPES",
    "openid profile email w_organization_social r_organization_social rw_organization_admin",
)

# Meta (Instagram + Facebook Page share one app)
FACEBOOK_CLIENT_ID = os.getenv("FACEBOOK_CLIENT_ID")
FACEBOOK_CLIENT_SECRET = os.getenv("FACEBOOK_CLIENT_SECRET")
FACEBOOK_PAGE_REDIRECT_URI = os.getenv("FACEBOOK_PAGE_REDIRECT_URI")
FACEBOOK_PAGE_SCOPES = os.getenv(
    "FACEBOOK_PAGE_SCOPES", "pages_show_list,pages_read_engagement,pages_manage_posts"
)
INSTAGRAM_REDIRECT_URI = os.getenv("INSTAGRAM_REDIRECT_URI")
INSTAGRAM_SCOPES = os.getenv(
    "INSTAGRAM_SCOPES",
    "instagram_basic,instagram_content_publish,pages_read_engagement,pages_show_list",
)
META_GRAPH_VERSION = os.getenv("META_GRAPH_VERSION", "v21.0")
META_WEBHOOK_VERIFY_TOKEN = os.getenv("META_WEBHOOK_VERIFY_TOKEN")

# Google Business Profile
GOOGLE_GBP_CLIENT_ID = os.getenv("GOOGLE_GBP_CLIENT_ID")
GOOGLE_GBP_CLIENT_SECRET = os.getenv("GOOGLE_GBP_CLIENT_SECRET")
GOOGLE_GBP_REDIRECT_URI = os.getenv("GOOGLE_GBP_REDIRECT_URI")
GOOGLE_GBP_SCOPES = os.getenv("GOOGLE_GBP_SCOPES", "https://www.googleapis.com/auth/business.manage")
