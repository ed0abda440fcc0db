from typing import Annotated
from fastapi import Depends
from bookstore_pos.modules.auth.utils import get_current_operator
from bookstore_pos.modules.auth.models import Operator

operator_dependency = Annotated[Operator, Depends(get_current_operator)]
