from typing import Any

import attrs


@attrs.frozen
class FeeLine:
    code: str  # 'class:<classId>', 'rv', 'stall'
    label: str
    unit_amount: int  # minor currency units
    qty: int

    @property
    def amount(self) -> int:
        return self.unit_amount * self.qty

    def to_dict(self) -> dict[str, Any]:
        return {
            'code': self.code,
            'label': self.label,
            'unit_amount': self.unit_amount,
            'qty': self.qty,
            'amount': self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'FeeLine':
        return cls(
            code=data['code'],
            label=data.get('label', data['code']),
            unit_amount=int(data['unit_amount']),
            qty=int(data['qty']),
        )
