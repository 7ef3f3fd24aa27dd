from apim_backup.adapters.apim.backup import backup_blob_name, trigger_backup

__all__ = ["backup_blob_name", "trigger_backup"]
