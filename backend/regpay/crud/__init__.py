from .crud_records import (
    RECORD_STORES,
    ConfirmResult,
    RecordStore,
    ServiceRecordView,
    get_store,
)
from . import crud_delivery_log
