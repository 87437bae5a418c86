# Event codes logged (and returned as errorCode) by the set_timezone lambda
MISSING_TIMEZONE = 'MISSING_TIMEZONE'
INVALID_TIMEZONE = 'INVALID_TIMEZONE'
TIMEZONE_UPDATED = 'TIMEZONE_UPDATED'
TIMEZONE_UNCHANGED = 'TIMEZONE_UNCHANGED'
