"""
Agrupación del kardex por (artículo, almacén).

Los saldos guardados en cada renglón son la fuente de verdad; aquí solo se
ordena, se agrupa y se anota cada renglón con su delta firmado.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

from ..domain.records import KardexRow


@dataclass
class KardexEntry:
    row: KardexRow
    delta: Decimal


@dataclass
class KardexGroup:
    article_code: str
    warehouse_code: str
    initial_balance: Decimal
    final_balance: Decimal
    entries: List[KardexEntry] = field(default_factory=list)

    @property
    def total_in(self) -> Decimal:
        return sum((e.delta for e in self.entries if e.delta > 0), Decimal("0"))

    @property
    def total_out(self) -> Decimal:
        return sum((-e.delta for e in self.entries if e.delta < 0), Decimal("0"))


def chronological_key(row: KardexRow):
    return (row.occurred_at, row.created_at, row.id)


def build_kardex(rows: Iterable[KardexRow]) -> List[KardexGroup]:
    """
    Agrupa renglones sin orden por (artículo, almacén).

    Cada grupo se ordena por (occurred_at, created_at, id). El saldo inicial es
    el saldo del primer renglón menos su delta; el saldo final es el del último.
    """
    grouped: Dict[Tuple[str, str], List[KardexRow]] = {}
    for row in rows:
        grouped.setdefault((row.article_code, row.warehouse_code), []).append(row)

    groups: List[KardexGroup] = []
    for (article_code, warehouse_code), items in sorted(grouped.items()):
        items.sort(key=chronological_key)
        entries = [KardexEntry(row=r, delta=r.delta_retail) for r in items]
        first = entries[0]
        groups.append(KardexGroup(
            article_code=article_code,
            warehouse_code=warehouse_code,
            initial_balance=first.row.balance_retail - first.delta,
            final_balance=entries[-1].row.balance_retail,
            entries=entries,
        ))
    return groups


def rebuild_balances(initial_balance: Decimal, deltas: Sequence[Decimal]) -> List[Decimal]:
    """[b0 + d1, b0 + d1 + d2, ...]"""
    balances = []
    running = initial_balance
    for delta in deltas:
        running = running + delta
        balances.append(running)
    return balances


def verify_chain(group: KardexGroup) -> bool:
    """True si reconstruir la cadena desde el saldo inicial reproduce cada saldo guardado."""
    rebuilt = rebuild_balances(group.initial_balance, [e.delta for e in group.entries])
    return rebuilt == [e.row.balance_retail for e in group.entries]
