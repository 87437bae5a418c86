# Event codes logged by the reset_quotas lambda
QUOTA_RESET = 'QUOTA_RESET'
RESET_JOB_ALREADY_CLAIMED = 'RESET_JOB_ALREADY_CLAIMED'
STALE_RESET_JOB = 'STALE_RESET_JOB'
ORPHANED_RESET_JOB = 'ORPHANED_RESET_JOB'
RESET_JOB_RETRY = 'RESET_JOB_RETRY'
RESET_JOB_DROPPED = 'RESET_JOB_DROPPED'
HIT_COUNTER_DRIFT = 'HIT_COUNTER_DRIFT'
