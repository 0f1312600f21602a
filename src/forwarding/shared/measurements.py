"""Weight, dimensions and money value objects used by every forwarding aggregate."""

from enum import Enum

from protean.fields import Float, String

from forwarding.domain import forwarding

_KG_PER_LB = 0.45359237
_CM_PER_IN = 2.54


class WeightUnit(Enum):
    KG = "kg"
    LB = "lb"


class LengthUnit(Enum):
    CM = "cm"
    IN = "in"


class Currency(Enum):
    USD = "USD"
    MAD = "MAD"


@forwarding.value_object
class Weight:
    """Weight of a physical parcel."""

    value = Float(required=True, min_value=0)
    unit = String(max_length=2, choices=WeightUnit, default=WeightUnit.KG.value)

    def in_kg(self) -> float:
        if self.unit == WeightUnit.LB.value:
            return self.value * _KG_PER_LB
        return self.value


@forwarding.value_object
class Dimensions:
    """Box dimensions of a physical parcel."""

    length = Float(required=True, min_value=0)
    width = Float(required=True, min_value=0)
    height = Float(required=True, min_value=0)
    unit = String(max_length=2, choices=LengthUnit, default=LengthUnit.CM.value)

    def in_cm(self) -> "Dimensions":
        if self.unit == LengthUnit.IN.value:
            return Dimensions(
                length=self.length * _CM_PER_IN,
                width=self.width * _CM_PER_IN,
                height=self.height * _CM_PER_IN,
                unit=LengthUnit.CM.value,
            )
        return self

    @property
    def volume(self) -> float:
        return self.length * self.width * self.height


@forwarding.value_object
class Money:
    amount = Float(required=True, min_value=0)
    currency = String(max_length=3, choices=Currency, default=Currency.USD.value)
