from enum import Enum

class Platform(str, Enum):
    TAOBAO = "taobao"
    TMALL = "tmall"
    ALIBABA_1688 = "1688"

class SearchType(str, Enum):
    KEYWORD = "keyword"
    CATEGORY = "category"
    BATCH_DETAILS = "batch_details"

class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

class JobPhase(str, Enum):
    SETUP = "setup"
    COLLECT = "collect"
    ENRICH = "enrich"
    PERSIST = "persist"
