# Event codes logged (and returned as errorCode) by the track_hit lambda
API_QUOTA_EXCEEDED = 'API_QUOTA_EXCEEDED'
HIT_RECORDED = 'HIT_RECORDED'
INVALID_ENDPOINT = 'INVALID_ENDPOINT'
