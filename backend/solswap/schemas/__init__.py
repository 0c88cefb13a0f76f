from solswap.schemas.position import PositionCreate, PositionResponse

__all__ = ["PositionCreate", "PositionResponse"]
