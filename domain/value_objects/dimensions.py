from pydantic import BaseModel, Field


class Dimensions(BaseModel):
    """Value object representing the pixel size of a stored image."""

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)

    model_config = {"frozen": True}
