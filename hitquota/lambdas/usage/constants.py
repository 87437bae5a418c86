# Event codes logged by the usage lambda
USAGE_REPORTED = 'USAGE_REPORTED'
