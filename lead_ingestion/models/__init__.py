from lead_ingestion.models.staging import ROW_FIELDS, LeadUploadBatch, LeadUploadStagingRow

__all__ = ["ROW_FIELDS", "LeadUploadBatch", "LeadUploadStagingRow"]
