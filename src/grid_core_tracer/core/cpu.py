# grid_core_tracer/core/cpu.py
"""
Core Layer (抽象処理単位)

このモジュールは、処理単位の基本的な状態管理と、1サイクル分の命令ステップの駆動に関する抽象化を提供します。
具体的な命令の振る舞いはInstruction Layerに移譲されます。
ポートを介した値の受け渡しは、処理単位自身ではなくGridのハンドシェイク解決によって完了します。
"""
from abc import ABC, abstractmethod
from typing import Optional

from grid_core_tracer.common.types import Coord
from grid_core_tracer.core.state import CoreState
from grid_core_tracer.transport.port import Direction, IntentKind, PortIntent

# @intent:responsibility 抽象処理単位の基本機能とインターフェースを定義します。
class AbstractCore(ABC):
    """
    グリッド上の全ての処理単位の基底となる抽象クラス。
    状態管理、ポート意図の保持、1サイクル分の提案(propose)と完了通知の流れを提供します。
    """
    # @intent:responsibility 処理単位の座標と状態を初期化します。
    def __init__(self, coord: Coord):
        self._coord = coord
        self._pending: Optional[PortIntent] = None
        self._state: CoreState = self._create_initial_state()

    @property
    def coord(self) -> Coord:
        return self._coord

    # @intent:responsibility 初期状態のCoreStateオブジェクトを生成します。
    @abstractmethod
    def _create_initial_state(self) -> CoreState:
        """
        処理単位の初期状態を生成して返します。
        """
        pass

    # @intent:responsibility 処理単位をリセットし、初期状態に戻します。
    def reset(self) -> None:
        self._state = self._create_initial_state()
        self._pending = None

    # @intent:responsibility 現在の状態を返します。
    def get_state(self) -> CoreState:
        return self._state

    @property
    def pending(self) -> Optional[PortIntent]:
        return self._pending

    def is_blocked(self) -> bool:
        return self._pending is not None

    # @intent:responsibility スケジューリング対象（プログラムを持ち、停止していない）かを返します。
    @abstractmethod
    def is_active(self) -> bool:
        pass

    # @intent:responsibility 現在のPCが指す命令を取り出します。PCは変更しません。
    @abstractmethod
    def _fetch(self):
        pass

    # @intent:responsibility 命令を実行し、ポート操作が必要であればその意図を返します。
    @abstractmethod
    def _execute(self, instruction) -> Optional[PortIntent]:
        pass

    # @intent:responsibility ポート読み出しが成立した命令を、その値で再開します。
    @abstractmethod
    def _resume(self, instruction, value: int) -> Optional[PortIntent]:
        pass

    # @intent:responsibility 書き込みが成立した命令を完了させます。
    @abstractmethod
    def _retire_write(self, instruction) -> None:
        pass

    # @intent:responsibility 意図の有無に応じて実行モードを更新します。
    @abstractmethod
    def _update_mode(self) -> None:
        pass

    # @intent:responsibility 1サイクル分の命令ステップを進め、未解決のポート意図を返します。
    # @intent:rationale Template Methodパターン。ブロック中は同じ意図を再提示するだけで、命令を再評価しません。
    def propose(self) -> Optional[PortIntent]:
        """
        即値命令であればこのサイクル内で完了させてNoneを返し、
        ポート操作が必要であればその意図を返します（以降、成立するまで毎サイクル同じ意図を返します）。
        """
        if not self.is_active():
            return None
        if self._pending is not None:
            return self._pending

        instruction = self._fetch()
        self._pending = self._execute(instruction)
        self._update_mode()
        return self._pending

    # @intent:responsibility ハンドシェイクで成立した読み出しを受け取ります。
    # @intent:pre-condition 保留中の意図がREADであり、directionがその候補に含まれている必要があります。
    def complete_read(self, value: int, direction: Direction) -> None:
        intent = self._take_pending(IntentKind.READ, direction)
        self._note_resolved(intent, direction)
        self._pending = self._resume(self._fetch(), value)
        self._update_mode()

    # @intent:responsibility ハンドシェイクで成立した書き込みを完了させます。
    def complete_write(self, direction: Direction) -> None:
        intent = self._take_pending(IntentKind.WRITE, direction)
        self._note_resolved(intent, direction)
        self._retire_write(self._fetch())
        self._update_mode()

    def _take_pending(self, kind: IntentKind, direction: Direction) -> PortIntent:
        intent = self._pending
        if intent is None or intent.kind != kind or direction not in intent.directions:
            raise RuntimeError(f"Core {self._coord} has no pending {kind.value} on {direction.value}.")
        self._pending = None
        return intent

    # @intent:responsibility 意図がどの具体方向で成立したかを記録するフック。デフォルトは何もしない。
    def _note_resolved(self, intent: PortIntent, direction: Direction) -> None:
        pass
