from pydantic import BaseModel, ConfigDict, Field


class ReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id_1: str | None = Field(default=None, alias="productId1")
    product_id_2: str | None = Field(default=None, alias="productId2")

    def is_complete(self) -> bool:
        return bool(self.product_id_1) and bool(self.product_id_2)


# Response key -> generated review bullets
ReviewResult = dict[str, list[str]]
