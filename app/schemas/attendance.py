from typing import Optional
from pydantic import BaseModel


# Attendance summary row as returned per class/term/year
class AttendanceSummaryRow(BaseModel):
    student_id: int
    class_id: Optional[int] = None
    present: int = 0
