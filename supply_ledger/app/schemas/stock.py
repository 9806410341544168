from pydantic import BaseModel


class StockRead(BaseModel):
    variant_id: int
    warehouse_id: int

    qty_on_hand: int
    qty_reserved: int
    qty_available: int  # READ ONLY : calculé, jamais écrit

    class Config:
        from_attributes = True
