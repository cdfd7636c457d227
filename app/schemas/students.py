from typing import Optional
from pydantic import BaseModel

class Student(BaseModel):
    id: int
    name: str = ""
    index_no: str = ""
    class_id: Optional[int] = None
