import os
from core.log import logger

if os.environ.get("ENVIRONTMENT") != "os":
    logger.info("load env from file")
    from dotenv import load_dotenv

    load_dotenv()
else:
    logger.info("load env from os")


def str_to_bool(string: str) -> bool:
    if string in ["true", "TRUE", "True"]:
        return True
    elif string in ["false", "FALSE", "False"]:
        return False
    else:
        raise Exception(
            f"{string} is not boolean, ex input true -> true, True, TRUE, ex input false -> false, False, FALSE"
        )


# Environtment
ENVIRONTMENT = os.environ.get("ENVIRONTMENT")

# Deployment mode
DEPLOYMENT_MODE = os.environ.get("DEPLOYMENT_MODE", "development")

# Timezone
TZ = os.environ.get("TZ", "Europe/Madrid")

# Locale used when the request does not ask for one
DEFAULT_LOCALE = os.environ.get("DEFAULT_LOCALE", "es")

# DAME API conf
DAME_API_URL = os.environ.get("DAME_API_URL", "https://organizaciondame.org/api")
DAME_API_TIMEOUT = float(os.environ.get("DAME_API_TIMEOUT", "30"))
MY_TICKETS_MAX_PAGES = int(os.environ.get("MY_TICKETS_MAX_PAGES", "50"))

# Frontend
FRONTEND_BASE_URL = os.environ.get("FRONTEND_BASE_URL", "")
LOGIN_PATH = os.environ.get("LOGIN_PATH", "/auth")

# Pending action saved before login
PENDING_INTENT_TTL_MINUTES = int(os.environ.get("PENDING_INTENT_TTL_MINUTES", "15"))

# CORS
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]
CORS_ALLOW_CREDENTIALS = str_to_bool(os.environ.get("CORS_ALLOW_CREDENTIALS", "True"))
