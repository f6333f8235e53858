import importlib.util as imputil


def _get_app_name() -> str:
    """
    Get main application name.

    Falls back to a hardcoded value if the module spec is not available (to satisfy mypy).
    """
    spec = imputil.find_spec(__name__)
    return spec.name if spec else "depository"


APP_NAME = _get_app_name()
