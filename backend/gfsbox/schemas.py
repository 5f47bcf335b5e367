from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

class RunConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    poly: Optional[int] = None # Reduction polynomial, prompted for when missing
    print_sbox: bool = False
    write_sbox: bool = False
    raw_inverse: bool = False # Export the inverse table instead of the S-box
    list_polys: bool = False

class SBoxRequest(BaseModel):
    poly: Optional[int] = Field(None, ge=0x100, le=0x1FF) # Reduction polynomial, configured default when missing
    raw_inverse: bool = False

class SBoxResponse(BaseModel):
    poly: int
    sbox: List[int]
    raw_inverse: bool
    is_bijective: bool
    unresolved: List[int]

class IrreducibleListResponse(BaseModel):
    count: int
    polys: List[int]
    hex: List[str]

class SBoxPayload(BaseModel):
    sbox: List[int] # 256 elements

class LinearAnalysisResponse(BaseModel):
    max_deviation: float
    row_maxima: List[float] # indexed by output mask - 1
    elapsed_ms: float

class ExcelExportRequest(BaseModel):
    sbox: List[int]
    summary: Optional[dict] = None
