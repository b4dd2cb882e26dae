"""
Pydantic models for the email proxy and template administration.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SendEmailRequest(BaseModel):
    to: str = Field(..., min_length=1, examples=["customer@example.com"])
    subject: str = Field(..., min_length=1)
    html: str = Field(..., min_length=1)
    text: Optional[str] = None


class EmailTemplateUpdate(BaseModel):
    subject: str = Field(..., min_length=1)
    html: str = Field(..., min_length=1)


class EmailTemplateRead(BaseModel):
    template_type: str
    subject: str
    html: str
    customized: bool = False
    updated_at: Optional[str] = None
