from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple
import uuid


@dataclass
class Player:
    id: str
    connection: Optional[str]
    nickname: str
    avatar: Optional[str] = None
    score: int = 0
    is_online: bool = True

    def to_dict(self):
        return {
            'id': self.id,
            'nickname': self.nickname,
            'avatar': self.avatar,
            'score': self.score,
            'isOnline': self.is_online,
        }

    def score_entry(self):
        return {'id': self.id, 'nickname': self.nickname, 'score': self.score}


class PlayerSet:
    """Seats of one room, in join order.

    Identity is the player id; the connection handle is transient and is
    replaced whenever the same id joins again.
    """

    def __init__(self):
        self._players: Dict[str, Player] = {}

    def __len__(self) -> int:
        return len(self._players)

    def __iter__(self) -> Iterator[Player]:
        return iter(list(self._players.values()))

    def __contains__(self, player_id) -> bool:
        return player_id in self._players

    def get(self, player_id: str) -> Optional[Player]:
        return self._players.get(player_id)

    def by_connection(self, connection: str) -> Optional[Player]:
        for player in self._players.values():
            if player.connection == connection:
                return player
        return None

    def join(self, player_id: Optional[str], nickname: str, avatar: Optional[str], connection: str) -> Tuple[Player, bool]:
        """Seat a player, or reattach an existing seat on reconnect.

        Returns the player and whether this was a reconnect.
        """
        existing = self._players.get(player_id) if player_id else None
        if existing:
            existing.connection = connection
            existing.is_online = True
            return existing, True

        player = Player(
            id=player_id or str(uuid.uuid4()),
            connection=connection,
            nickname=nickname,
            avatar=avatar,
        )
        self._players[player.id] = player
        return player, False

    def leave(self, connection: str) -> Optional[Player]:
        player = self.by_connection(connection)
        if not player:
            return None
        player.connection = None
        player.is_online = False
        return player

    def clear(self) -> None:
        self._players.clear()

    def online(self) -> List[Player]:
        return [p for p in self._players.values() if p.is_online]

    def scores(self) -> List[dict]:
        return [p.score_entry() for p in self._players.values()]

    def final_scores(self) -> List[dict]:
        # sorted() is stable, so ties keep join order
        ranked = sorted(self._players.values(), key=lambda p: p.score, reverse=True)
        return [{**p.score_entry(), 'avatar': p.avatar} for p in ranked]
