import logging


_ROOT_NAME = "conciliador"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str = _ROOT_NAME) -> logging.Logger:
    """Logger del conciliador. Los modulos piden un hijo (`conciliador.<modulo>`)."""
    root = logging.getLogger(_ROOT_NAME)
    if not root.handlers:
        root.setLevel(logging.INFO)
        ch = logging.StreamHandler()
        ch.setLevel(logging.INFO)
        ch.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(ch)

    if name == _ROOT_NAME or name.startswith(_ROOT_NAME + "."):
        return logging.getLogger(name)
    return root.getChild(name)
