from hitquota.dao.base.user_base_dao import UserBaseDAO
from hitquota.dao.base.hit_base_dao import HitBaseDAO
from hitquota.dao.base.reset_job_base_dao import ResetJobBaseDAO


__all__ = [
    'UserBaseDAO',
    'HitBaseDAO',
    'ResetJobBaseDAO',
]
