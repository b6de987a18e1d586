from storefront.domain.models import FeeSettings
from storefront.domain.exceptions import ValidationError


class GetFeeSettingsUseCase:
    def __init__(self, unit_of_work, default_fees: FeeSettings):
        self._uow = unit_of_work
        self._default_fees = default_fees

    async def __call__(self) -> FeeSettings:
        async with self._uow() as uow:
            return await uow.settings.get_fee_settings() or self._default_fees


class UpdateFeeSettingsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, fees: FeeSettings) -> FeeSettings:
        for name, value in fees.model_dump().items():
            if not 0 <= value <= 100:
                raise ValidationError(f"{name} должен быть в диапазоне 0..100")

        async with self._uow() as uow:
            await uow.settings.save_fee_settings(fees)
            await uow.commit()
        return fees
