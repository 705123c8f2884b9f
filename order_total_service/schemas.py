from pydantic import BaseModel, ConfigDict, Field
from typing import Literal

# 32-bit signed range for the pass-through identifiers
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


# Request and response body for /compute
class Order(BaseModel):
    # No coercion: "5" is not an int, 5.0 is not an int
    model_config = ConfigDict(strict=True)

    order_id: int = Field(ge=INT32_MIN, le=INT32_MAX)
    product_id: int = Field(ge=INT32_MIN, le=INT32_MAX)
    quantity: int = Field(ge=INT32_MIN, le=INT32_MAX)
    subtotal: float
    shipping_address: str
    shipping_zip: str # Sent verbatim to the rate lookup service
    total: float # Overwritten by the computed total


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    message: str
