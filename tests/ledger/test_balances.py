"""测试余额引擎"""
from datetime import date

from ledger import balances
from ledger.records import (
    ExpenseRecord, IncomeRecord, InventoryTransaction, LedgerSnapshot, Order,
    Transfer, Worker,
)

TODAY = date(2024, 1, 28)


def _tx(id, item_type, change, balance, sequence):
    return InventoryTransaction(
        id=id, transaction_date=TODAY, transaction_type="adjust",
        quantity_change=change, balance_quantity=balance,
        item_type=item_type, sequence=sequence,
    )


def _order(order_no, status="confirmed", quantity=10, total=100.0, paid=0.0,
           expected=None, worker_id=1, bank_card=None):
    return Order(
        order_no=order_no, worker_id=worker_id, quantity=quantity, unit_price=10.0,
        total_amount=total, paid_amount=paid, order_date=date(2024, 1, 1),
        expected_delivery=expected, order_status=status, bank_card=bank_card,
    )


class TestCategoryBalance:
    """品类结余"""

    def test_latest_row_of_category_not_last_row(self):
        inventory = [
            _tx(1, "complete", 50, 50, 1),
            _tx(2, "complete", -20, 30, 2),
            _tx(3, "coil", 5, 5, 1),
        ]
        assert balances.category_balance(inventory, "complete") == 30
        assert balances.category_balance(inventory, "coil") == 5

    def test_order_independent(self):
        inventory = [_tx(2, "complete", -20, 30, 2), _tx(1, "complete", 50, 50, 1)]
        assert balances.category_balance(inventory, "complete") == 30

    def test_empty_category_is_zero(self):
        assert balances.category_balance([_tx(1, "coil", 5, 5, 1)], "main-cord") == 0

    def test_sellable_only_counts_complete(self):
        inventory = [_tx(1, "complete", 3, 3, 1), _tx(2, "coil", 99, 99, 1)]
        assert balances.sellable_stock(inventory) == 3

    def test_category_balances_all_types(self):
        result = balances.category_balances([_tx(1, "coil", 5, 5, 1)])
        assert result == {"complete": 0, "main-cord": 0, "coil": 5}


class TestTotals:
    """金额汇总"""

    def setup_method(self):
        self.snapshot = LedgerSnapshot(
            workers=[Worker(id=1, name="王阿姨")],
            orders=[
                _order("A", status="confirmed", quantity=50, total=400, paid=100, bank_card="中信卡"),
                _order("B", status="producing", quantity=30, total=300, paid=0),
                _order("C", status="received", quantity=20, total=200, paid=200, bank_card="雪雪卡"),
                _order("D", status="pending", quantity=99, total=10, paid=0),
                _order("E", status="cancelled", quantity=7, total=0, paid=0),
            ],
            transfers=[Transfer(id=1, worker_id=1, amount=50, transfer_date=TODAY)],
            incomes=[
                IncomeRecord(id=1, date=TODAY, platform="闲鱼", amount=1000, quantity=10, bank_card="中信卡"),
                IncomeRecord(id=2, date=TODAY, platform="微信", amount=500, quantity=5),
            ],
            expenses=[ExpenseRecord(id=1, date=TODAY, purpose="快递", amount=30, quantity=1, bank_card="中信卡")],
        )

    def test_in_transit_counts_confirmed_producing_delivered(self):
        assert balances.in_transit(self.snapshot.orders) == 80

    def test_unpaid_total(self):
        assert balances.unpaid_total(self.snapshot.orders) == 300 + 300 + 10

    def test_revenue_and_expenditure(self):
        assert balances.total_revenue(self.snapshot.incomes) == 1500
        assert balances.total_paid_expenditure(self.snapshot.orders, self.snapshot.transfers) == 350
        assert balances.total_other_expenses(self.snapshot.expenses) == 30

    def test_net_profit(self):
        assert balances.net_profit(self.snapshot) == 1500 - 350 - 30

    def test_bank_card_cash_flow(self):
        flows = {f.card: f for f in balances.bank_card_cash_flow(
            self.snapshot, ["雪雪卡", "中信卡", "翕翕卡"])}
        assert flows["中信卡"].income == 1000
        assert flows["中信卡"].expenditure == 100 + 30
        assert flows["中信卡"].balance == 870
        assert flows["雪雪卡"].balance == -200
        assert flows["翕翕卡"].balance == 0


class TestDelayedOrders:
    """延期订单"""

    def test_only_open_orders_past_due(self):
        snapshot = LedgerSnapshot(
            workers=[Worker(id=1, name="王阿姨")],
            orders=[
                _order("LATE", expected=date(2024, 1, 20)),
                _order("LATER", status="producing", expected=date(2024, 1, 25)),
                _order("TODAY", expected=TODAY),
                _order("NONE", expected=None),
                _order("DONE", status="received", expected=date(2024, 1, 1)),
                _order("GONE", status="cancelled", expected=date(2024, 1, 1)),
                _order("ORPHAN", expected=date(2024, 1, 27), worker_id=42),
            ],
        )
        delayed = balances.delayed_orders(snapshot, TODAY)
        assert [(d.order.order_no, d.delay_days) for d in delayed] == [
            ("LATE", 8), ("LATER", 3), ("ORPHAN", 1),
        ]
        assert delayed[0].worker_name == "王阿姨"
        assert delayed[2].worker_name == "未知工人"

    def test_dashboard_keeps_top_five(self):
        orders = [_order(f"O{i}", expected=date(2024, 1, i + 1)) for i in range(8)]
        stats = balances.dashboard_stats(LedgerSnapshot(orders=orders), TODAY)
        assert stats.delayed_count == 8
        assert len(stats.delayed_orders) == 5
        assert stats.delayed_orders[0].order.order_no == "O0"


class TestVerifyRunningBalances:
    """结余前缀和校验"""

    def test_consistent_log(self):
        inventory = [
            _tx(1, "complete", 10, 10, 1),
            _tx(2, "coil", 4, 4, 1),
            _tx(3, "complete", -15, -5, 2),
        ]
        assert balances.verify_running_balances(inventory) == []

    def test_detects_mismatch(self):
        bad = _tx(2, "complete", 5, 99, 2)
        inventory = [_tx(1, "complete", 10, 10, 1), bad]
        assert balances.verify_running_balances(inventory) == [bad]
