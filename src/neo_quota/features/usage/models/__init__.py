from .responses import UsageRecordResponse, UsageRecordListResponse

__all__ = ["UsageRecordResponse", "UsageRecordListResponse"]
