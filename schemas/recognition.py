# User value: This file keeps the scan request/response shape identical for local engines and the remote recognizer.
import base64
from enum import Enum
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageFormat(str, Enum):
    TIF = "tif"
    JPG = "jpg"
    PNG = "png"
    GIF = "gif"
    BMP = "bmp"


class ImagePayload(BaseModel):
    # User value: carries the check image as base64 so it survives the JSON hop to a remote recognizer.
    buffer: str = Field(..., min_length=1)
    format: ImageFormat

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.buffer)


class CheckScanRequest(BaseModel):
    id: str = Field(..., min_length=1)
    image: ImagePayload
    translators: List[str] = Field(default_factory=list)
    debug: Optional[List[str]] = None
    logLevel: Optional[str] = None


class EngineResult(BaseModel):
    # User value: the three MICR fields an engine read from the check; anything richer is passed through untouched.
    model_config = ConfigDict(extra="allow")

    routingNumber: Optional[str] = None
    accountNumber: Optional[str] = None
    checkNumber: Optional[str] = None


class TranslatorResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    result: EngineResult = Field(default_factory=EngineResult)
    details: Optional[dict] = None


class NamedImage(BaseModel):
    name: str
    buffer: str
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.buffer)


class CheckScanResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    translators: Dict[str, TranslatorResponse] = Field(default_factory=dict)
    images: List[NamedImage] = Field(default_factory=list)

    # User value: hands the classifier one result per engine, in the order the engines answered.
    def outcome(self) -> Dict[str, EngineResult]:
        return {name: tr.result for name, tr in self.translators.items()}

    def image(self, name: str) -> Optional[NamedImage]:
        for img in self.images:
            if img.name == name:
                return img
        return None


RecognitionOutcome = Mapping[str, EngineResult]
