from pydantic import BaseModel, Field
from typing import Optional, List


class PhotoAttachment(BaseModel):
    """A listing photo sent along with a suggestion request"""
    name: Optional[str] = None
    size: int = 0
    last_modified: Optional[float] = None
    mime_type: str = "image/jpeg"
    data: Optional[bytes] = None  # Raw bytes when uploaded
    url: Optional[str] = None     # Remote image when not uploaded

    @property
    def file_key(self) -> Optional[str]:
        if self.data is None or not self.name:
            return None
        return f"{self.name}-{self.size}-{self.last_modified}"


class SuggestionContext(BaseModel):
    """Listing state the assistant writes from"""
    locale: str = "en"
    current_title: Optional[str] = None
    current_description: Optional[str] = None
    description: Optional[str] = None   # Draft description
    location: Optional[str] = None
    attachments: List[PhotoAttachment] = Field(default_factory=list)


class TitleSuggestionRequest(SuggestionContext):
    """Request to suggest a listing title"""
    max_length: int = 60


class DescriptionSuggestionRequest(SuggestionContext):
    """Request to suggest a listing description"""
    max_length: int = 500
    min_length: Optional[int] = None


class SuggestionResponse(BaseModel):
    """Suggested text, already trimmed to the requested limit"""
    text: str
    max_length: int
    model: Optional[str] = None
