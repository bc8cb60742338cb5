import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# 业务日志都挂在 poingest.* 下（adapter / resolver / persistence / access ...）
APP_LOGGER = "poingest"


def setup_logging(level: str = "INFO") -> None:
    """
    进程级日志，由 lifespan 调用一次：
    - 根 logger 一个 stdout handler，重复调用不会叠加输出；
    - 请求访问日志由 PrometheusMiddleware 写到 poingest.access，uvicorn 自带的 access 日志压到 WARNING；
    - SQL 回显只在 DEBUG 时打开。
    """
    lvl = level.upper()

    root = logging.getLogger()
    root.setLevel(lvl)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    logging.getLogger(APP_LOGGER).setLevel(lvl)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if lvl == "DEBUG" else logging.WARNING)
