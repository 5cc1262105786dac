"""
Logger Service Constants

Local constants for the logger service to avoid hardcoded values
and provide centralized configuration for logger-specific settings.
"""

# ====================================================================
# CONSOLE SINK CONSTANTS
# ====================================================================

CONSOLE_LOG_FORMAT = (
    "<dim>[{time:YYYY-MM-DD HH:mm:ss}]</dim> "
    "<level>{level: <8}</level> "
    "<cyan>{extra[source]}/{extra[logger_name]}</cyan> "
    "{message}"
)

# ====================================================================
# FILE SINK CONSTANTS
# ====================================================================

FILE_LOG_FORMAT = (
    "{time:YYYY-MM-DDTHH:mm:ss.SSSZZ} | {level} | "
    "{extra[source]} | {extra[logger_name]} | {message} | {extra[context]}"
)
FILE_LOG_ROTATION = "10 MB"
FILE_LOG_RETENTION = "30 days"
FILE_LOG_COMPRESSION = "gz"
