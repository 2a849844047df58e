import logging, os, sys


def setup_logging(level_name: str | None = None):
    level = getattr(logging, (level_name or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    configured_cloud = False
    # Prefer Cloud Logging on Cloud Run if the optional client is installed
    if os.getenv("K_SERVICE") and os.getenv("USE_GCP_LOGGING", "true").lower() == "true":
        try:
            from google.cloud import logging as cloud_logging
            client = cloud_logging.Client()
            client.setup_logging(log_level=level)
            configured_cloud = True
        except Exception:
            configured_cloud = False  # fall through to stdout

    if not configured_cloud:
        root = logging.getLogger()
        root.setLevel(level)
        for h in list(root.handlers):
            root.removeHandler(h)
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(logging.Formatter('%(asctime)s | %(levelname)s | %(name)s | %(message)s'))
        root.addHandler(sh)

    logging.captureWarnings(True)

    # Noisy client libraries
    for name in ("httpx", "httpcore", "anthropic", "chromadb", "sentence_transformers", "mcp"):
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in (
        "compare_bot",
        "compare_bot.orchestrator",
        "compare_bot.routes.chat",
        "gunicorn.error",
        "gunicorn.access",
    ):
        logging.getLogger(name).setLevel(level)
