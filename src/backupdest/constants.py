"""Object names and URI conventions shared by backup collections."""

# Name of the manifest written once a backup completes.
BACKUP_MANIFEST_NAME = "BACKUP_MANIFEST"
# Manifest name used by old releases; incremental discovery still honors it.
BACKUP_OLD_MANIFEST_NAME = "BACKUP"

# Fixed name of the latest pointer, also the prefix of timestamped pointers.
LATEST_FILE_NAME = "LATEST"
# Subdirectory alias meaning "the most recent backup in the collection".
LATEST_ALIAS = LATEST_FILE_NAME
BACKUP_METADATA_DIRECTORY = "metadata"
LATEST_HISTORY_DIRECTORY = BACKUP_METADATA_DIRECTORY + "/latest"

# Incremental layers live under this directory of the collection by default.
DEFAULT_INCREMENTALS_SUBDIR = "incrementals"
# strftime pattern of an incremental layer folder; hundredths are appended.
DATE_BASED_INC_FOLDER_FORMAT = "/%Y%m%d/%H%M%S"
# Subdirectory of a new full backup, chosen from its end time; hundredths appended.
DATE_BASED_INTO_FOLDER_FORMAT = "/%Y/%m/%d-%H%M%S"

# Listing delimiter that keeps data files out of collection listings.
LISTING_DELIM_DATA_SLASH = "data/"

LOCALITY_URL_PARAM = "COCKROACH_LOCALITY"
DEFAULT_LOCALITY_VALUE = "default"

FULL_BACKUP_WITH_SUBDIR_SETTING = "bulkio.backup.deprecated_full_backup_with_subdir.enabled"
