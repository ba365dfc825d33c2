from .domain_students import *  # noqa: F401,F403
from .domain_fees import *  # noqa: F401,F403
from .domain_logs import *  # noqa: F401,F403
