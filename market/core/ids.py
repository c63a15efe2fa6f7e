import time
import uuid

def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def now_ms() -> int:
    # listing timestamps are epoch milliseconds
    return int(time.time() * 1000)
