from pydantic import BaseModel, Field
from typing import List


class SanitizedQuestion(BaseModel):
    """A question as delivered to a student: text and the four options, never the answer."""
    text: str = Field(..., description="The question text.")
    options: List[str] = Field(..., min_length=4, max_length=4, description="The four answer options, in order.")
