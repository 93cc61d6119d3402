"""Pumpswap Decoder — constant-product AMM for graduated Pumpfun tokens.

Buy/sell payloads carry one exact side (base amount); the user's quote amount
comes from the Buy/Sell event when present, otherwise from balance deltas.
"""

from dexparser.domain.enums import Capability, InstructionKind, Protocol
from dexparser.parser.generic.base import DiscriminatorDecoder, Position
from dexparser.parser.utils.binary import BinaryReader
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Instruction, TokenLeg

PUMP_SWAP = "pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA"

BUY = bytes([102, 6, 61, 18, 1, 218, 235, 234])
SELL = bytes([51, 230, 133, 164, 1, 127, 131, 173])
DEPOSIT = bytes([242, 35, 198, 137, 82, 225, 242, 182])
WITHDRAW = bytes([183, 18, 70, 156, 148, 109, 161, 34])

BUY_EVENT = bytes([103, 244, 82, 31, 44, 245, 119, 119])
SELL_EVENT = bytes([62, 47, 55, 10, 165, 3, 220, 42])
DEPOSIT_EVENT = bytes([120, 248, 61, 83, 31, 142, 107, 144])
WITHDRAW_EVENT = bytes([22, 9, 133, 26, 160, 44, 71, 192])

# buy/sell: pool, user, global_config, base_mint, quote_mint, user_base, user_quote, pool_base, pool_quote, ...
TRADE_ACCOUNTS = {"pool": 0, "user": 1, "base_mint": 3, "quote_mint": 4, "user_base": 5, "user_quote": 6, "min_accounts": 9}
# deposit/withdraw: pool, global_config, user, base_mint, quote_mint, lp_mint, user_base, user_quote, user_pool_token, ...
LIQUIDITY_ACCOUNTS = {"pool": 0, "user": 2, "base_mint": 3, "quote_mint": 4, "lp_mint": 5, "user_base": 6, "user_quote": 7, "user_lp": 8, "min_accounts": 9}


class PumpswapDecoder(DiscriminatorDecoder):
    """Handles Pumpswap buy/sell and deposit/withdraw."""

    PROTOCOL_NAME = Protocol.PUMPSWAP.value
    PROGRAM_IDS = frozenset({PUMP_SWAP})
    CAPABILITIES = frozenset({Capability.TRADES, Capability.LIQUIDITY})
    INSTRUCTION_HANDLERS = {
        BUY: "_handle_buy",
        SELL: "_handle_sell",
        DEPOSIT: "_handle_deposit",
        WITHDRAW: "_handle_withdraw",
    }

    def _handle_buy(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, TRADE_ACCOUNTS["min_accounts"])
        reader = self._reader(instruction)
        base_amount_out = reader.read_u64()
        reader.read_u64()  # max_quote_amount_in

        quote_amount_in = None
        event = self._find_event(inner, BUY_EVENT)
        if event is not None:
            base_amount_out, quote_amount_in = self._read_trade_event(event)

        base, quote = self._trade_legs(accounts, context)
        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=quote.model_copy(update={"amount": quote_amount_in}),
            output_leg=base.model_copy(update={"amount": base_amount_out}),
            pool=context.address(accounts[TRADE_ACCOUNTS["pool"]]),
            user=context.address(accounts[TRADE_ACCOUNTS["user"]]),
        )

    def _handle_sell(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, TRADE_ACCOUNTS["min_accounts"])
        reader = self._reader(instruction)
        base_amount_in = reader.read_u64()
        reader.read_u64()  # min_quote_amount_out

        quote_amount_out = None
        event = self._find_event(inner, SELL_EVENT)
        if event is not None:
            base_amount_in, quote_amount_out = self._read_trade_event(event)

        base, quote = self._trade_legs(accounts, context)
        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=base.model_copy(update={"amount": base_amount_in}),
            output_leg=quote.model_copy(update={"amount": quote_amount_out}),
            pool=context.address(accounts[TRADE_ACCOUNTS["pool"]]),
            user=context.address(accounts[TRADE_ACCOUNTS["user"]]),
        )

    def _handle_deposit(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        lp_amount = self._reader(instruction).read_u64()  # lp_token_amount_out
        amounts = self._read_liquidity_event(self._find_event(inner, DEPOSIT_EVENT))
        return self._liquidity(instruction, context, position, InstructionKind.ADD_LIQUIDITY, lp_amount, amounts)

    def _handle_withdraw(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        lp_amount = self._reader(instruction).read_u64()  # lp_token_amount_in
        amounts = self._read_liquidity_event(self._find_event(inner, WITHDRAW_EVENT))
        return self._liquidity(instruction, context, position, InstructionKind.REMOVE_LIQUIDITY, lp_amount, amounts)

    def _liquidity(
        self,
        instruction: Instruction,
        context: TransactionContext,
        position: Position,
        kind: InstructionKind,
        lp_amount: int,
        amounts: tuple[int | None, int | None],
    ) -> DecodedIntent:
        layout = LIQUIDITY_ACCOUNTS
        accounts = self._require_accounts(instruction, layout["min_accounts"])
        base_amount, quote_amount = amounts
        return self._make_intent(
            instruction,
            kind,
            position,
            liquidity_legs=[
                TokenLeg(
                    account_index=accounts[layout["user_base"]],
                    mint=context.address(accounts[layout["base_mint"]]),
                    amount=base_amount,
                ),
                TokenLeg(
                    account_index=accounts[layout["user_quote"]],
                    mint=context.address(accounts[layout["quote_mint"]]),
                    amount=quote_amount,
                ),
            ],
            lp_leg=TokenLeg(
                account_index=accounts[layout["user_lp"]],
                mint=context.address(accounts[layout["lp_mint"]]),
                amount=lp_amount,
            ),
            pool=context.address(accounts[layout["pool"]]),
            user=context.address(accounts[layout["user"]]),
        )

    @staticmethod
    def _trade_legs(accounts: tuple[int, ...], context: TransactionContext) -> tuple[TokenLeg, TokenLeg]:
        base = TokenLeg(
            account_index=accounts[TRADE_ACCOUNTS["user_base"]],
            mint=context.address(accounts[TRADE_ACCOUNTS["base_mint"]]),
        )
        quote = TokenLeg(
            account_index=accounts[TRADE_ACCOUNTS["user_quote"]],
            mint=context.address(accounts[TRADE_ACCOUNTS["quote_mint"]]),
        )
        return base, quote

    @staticmethod
    def _read_trade_event(reader: BinaryReader) -> tuple[int, int]:
        """(base amount, user quote amount) from a Buy/Sell event body.

        Layout: timestamp, base amount, quote limit, 4 reserves, quote amount,
        lp_fee_bps, lp_fee, protocol_fee_bps, protocol_fee, quote amount incl./excl. lp fee,
        user quote amount.
        """
        reader.read_i64()  # timestamp
        base_amount = reader.read_u64()
        reader.skip(8 * 11)
        user_quote_amount = reader.read_u64()
        return base_amount, user_quote_amount

    @staticmethod
    def _read_liquidity_event(reader: BinaryReader | None) -> tuple[int | None, int | None]:
        """(base amount, quote amount) from a Deposit/Withdraw event body.

        Layout: timestamp, lp amount, base limit, quote limit, 4 reserves, base amount, quote amount, ...
        """
        if reader is None:
            return None, None
        reader.read_i64()  # timestamp
        reader.skip(8 * 7)
        return reader.read_u64(), reader.read_u64()
