import asyncio
import json
import random
import unittest

from subhunt.schemas import (
    ConnectedEvent,
    ErrorEvent,
    GameCreatedEvent,
    GameOverEvent,
    GameRules,
    GameStartEvent,
    MapEvent,
    NewGameCommand,
    Position,
    StateUpdateEvent,
)
from subhunt.services.directory import GameDirectory
from subhunt.services.player import ListSink
from subhunt.services.protocol import CommandDispatcher

from helpers import OPEN_10, board_from, place_submarines


def _errors(sink: ListSink) -> list[str]:
    return [e.error_type for e in sink.of_type(ErrorEvent)]


class TestCommandDispatch(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.directory = GameDirectory(board_from(OPEN_10), rules=GameRules(submarines_per_player=3), rng=random.Random(7))
        self.dispatcher = CommandDispatcher(self.directory)
        self.sink_a = ListSink()
        self.sink_b = ListSink()
        self.a = self.dispatcher.connect(self.sink_a)
        self.b = self.dispatcher.connect(self.sink_b)

    def send(self, player, **command):
        self.dispatcher.handle_message(player, json.dumps(command))

    async def settle(self):
        await self.directory.drain()

    async def start_game(self):
        self.send(self.a, commandType="gameNew")
        game_id = self.sink_a.last(GameCreatedEvent).game_id
        self.send(self.b, commandType="gameJoin", gameId=game_id)
        await self.settle()
        game = self.directory.get(game_id)
        self.sink_a.clear()
        self.sink_b.clear()
        return game

    def holder_and_other(self, game):
        if game.current_turn is self.a:
            return self.a, self.b
        return self.b, self.a

    async def test_connect_assigns_ids(self):
        self.assertEqual(self.sink_a.events, [ConnectedEvent(player_id=1)])
        self.assertEqual(self.sink_b.events, [ConnectedEvent(player_id=2)])
        self.assertEqual(self.directory.player_count, 2)

    async def test_new_game_then_join(self):
        self.send(self.a, commandType="gameNew")
        created = self.sink_a.last(GameCreatedEvent)
        self.assertIsNotNone(created)
        listing = self.directory.list()
        self.assertEqual([g.game_id for g in listing.games], [created.game_id])

        self.send(self.b, commandType="gameJoin", gameId=created.game_id)
        await self.settle()
        game = self.directory.get(created.game_id)
        self.assertEqual(game.status, "active")
        self.assertEqual(game.players, [self.a, self.b])
        for sink in (self.sink_a, self.sink_b):
            kinds = [type(e) for e in sink.events if not isinstance(e, (ConnectedEvent, GameCreatedEvent))]
            self.assertEqual(kinds, [GameStartEvent, MapEvent, StateUpdateEvent])
        self.assertEqual(self.directory.list().games, [])

    async def test_join_unknown_game(self):
        self.send(self.b, commandType="gameJoin", gameId="nosuchgame")
        self.assertEqual(_errors(self.sink_b), ["game_not_found"])

    async def test_join_full_game(self):
        game = await self.start_game()
        c_sink = ListSink()
        c = self.dispatcher.connect(c_sink)
        self.send(c, commandType="gameJoin", gameId=game.game_id)
        await self.settle()
        self.assertEqual(_errors(c_sink), ["game_full"])
        self.assertEqual(len(game.players), 2)
        self.assertIsNone(c.game)

    async def test_already_in_game(self):
        game = await self.start_game()
        self.send(self.a, commandType="gameNew")
        self.send(self.b, commandType="gameJoin", gameId=game.game_id)
        await self.settle()
        self.assertEqual(_errors(self.sink_a), ["already_in_game"])
        self.assertEqual(_errors(self.sink_b), ["already_in_game"])
        self.assertEqual(len(self.directory), 1)

    async def test_actions_require_a_game(self):
        self.send(self.a, commandType="bouy", position={"x": 1, "y": 1})
        self.send(self.a, commandType="depthCharge", position={"x": 1, "y": 1})
        self.send(self.a, commandType="move", submarineId=1, position={"x": 1, "y": 1})
        self.assertEqual(_errors(self.sink_a), ["not_in_game"] * 3)

    async def test_invalid_commands(self):
        self.dispatcher.handle_message(self.a, "not json")
        self.send(self.a, commandType="chat", text="hi")
        self.send(self.a, commandType="bouy")
        self.send(self.a, commandType="move", submarineId="one", position={"x": 1, "y": 1})
        self.assertEqual(_errors(self.sink_a), ["invalid_command"] * 4)

    async def test_actions_before_opponent_joins(self):
        self.send(self.a, commandType="gameNew")
        self.send(self.a, commandType="bouy", position={"x": 1, "y": 1})
        await self.settle()
        self.assertEqual(_errors(self.sink_a), ["game_not_active"])

    async def test_turn_is_enforced_for_every_action(self):
        game = await self.start_game()
        holder, other = self.holder_and_other(game)
        other_sink = self.sink_a if other is self.a else self.sink_b
        own = next(game.entities.submarines_of(other))

        self.send(other, commandType="bouy", position={"x": 3, "y": 3})
        self.send(other, commandType="depthCharge", position={"x": 3, "y": 3})
        self.send(other, commandType="move", submarineId=own.id, position={"x": 3, "y": 3})
        await self.settle()

        self.assertEqual(_errors(other_sink), ["not_your_turn"] * 3)
        self.assertEqual(game.entities.bouys, [])
        self.assertEqual(len(game.entities.submarines), 6)
        self.assertIs(game.current_turn, holder)
        self.assertEqual(self.sink_a.of_type(StateUpdateEvent), [])

    async def test_turn_passes_after_each_action(self):
        game = await self.start_game()
        first, second = self.holder_and_other(game)
        self.send(first, commandType="bouy", position={"x": 3, "y": 3})
        await self.settle()
        self.assertIs(game.current_turn, second)
        self.assertEqual(self.sink_a.last(StateUpdateEvent).current_player, second.id)
        self.assertEqual(self.sink_b.last(StateUpdateEvent).current_player, second.id)

        own = next(game.entities.submarines_of(second))
        target = {"x": own.pos.x, "y": 4}
        self.send(second, commandType="move", submarineId=own.id, position=target)
        await self.settle()
        self.assertEqual(own.pos, Position(**target))
        self.assertIs(game.current_turn, first)

    async def test_rejected_action_keeps_the_turn(self):
        game = await self.start_game()
        holder, _ = self.holder_and_other(game)
        holder_sink = self.sink_a if holder is self.a else self.sink_b
        self.send(holder, commandType="bouy", position={"x": 5, "y": 5})
        self.send(holder, commandType="depthCharge", position={"x": 10, "y": 0})
        await self.settle()
        self.assertEqual(_errors(holder_sink), ["cannot_place_bouy_on_land", "out_of_bounds"])
        self.assertIs(game.current_turn, holder)

    async def test_move_checks_submarine_ownership(self):
        game = await self.start_game()
        holder, other = self.holder_and_other(game)
        holder_sink = self.sink_a if holder is self.a else self.sink_b
        theirs = next(game.entities.submarines_of(other))
        self.send(holder, commandType="move", submarineId=theirs.id, position={"x": 4, "y": 4})
        self.send(holder, commandType="move", submarineId=999, position={"x": 4, "y": 4})
        await self.settle()
        self.assertEqual(_errors(holder_sink), ["not_your_submarine", "submarine_not_found"])
        self.assertIs(game.current_turn, holder)

    async def test_depth_charge_win(self):
        game = await self.start_game()
        game.current_turn = self.a
        place_submarines(game, (self.a, 0, 0), (self.b, 9, 9))
        self.send(self.a, commandType="depthCharge", position={"x": 9, "y": 8})
        await self.settle()
        self.assertEqual(game.status, "over")
        self.assertEqual(self.sink_b.last(GameOverEvent), GameOverEvent(winner=self.a.id, reason="destroyed"))

        self.send(self.b, commandType="bouy", position={"x": 2, "y": 2})
        await self.settle()
        self.assertEqual(_errors(self.sink_b), ["game_not_active"])

        # a finished game does not block starting a new one
        self.send(self.b, commandType="gameNew")
        await self.settle()
        self.assertIsNotNone(self.sink_b.last(GameCreatedEvent))
        self.assertIsNot(self.b.game, game)

    async def test_disconnect_forfeits_active_game(self):
        game = await self.start_game()
        self.dispatcher.disconnect(self.b)
        await self.settle()
        self.assertEqual(game.status, "over")
        self.assertEqual(self.sink_a.last(GameOverEvent), GameOverEvent(winner=self.a.id, reason="forfeit"))
        self.assertIn(game, self.directory)

        self.send(self.a, commandType="gameLeave")
        await self.settle()
        self.assertNotIn(game, self.directory)
        self.assertIsNone(self.a.game)

    async def test_leaving_waiting_game_removes_it(self):
        self.send(self.a, commandType="gameNew")
        game_id = self.sink_a.last(GameCreatedEvent).game_id
        self.dispatcher.disconnect(self.a)
        await self.settle()
        self.assertEqual(len(self.directory), 0)
        self.send(self.b, commandType="gameJoin", gameId=game_id)
        self.assertEqual(_errors(self.sink_b), ["game_not_found"])

    async def test_board_without_spawns(self):
        directory = GameDirectory(board_from("....\n.#..\n...."))
        dispatcher = CommandDispatcher(directory)
        sink = ListSink()
        player = dispatcher.connect(sink)
        dispatcher.handle_message(player, '{"commandType": "gameNew"}')
        self.assertEqual(_errors(sink), ["game_aborted"])
        self.assertEqual(len(directory), 0)
        self.assertIsNone(player.game)

    async def test_games_run_independently(self):
        game1 = await self.start_game()
        c_sink, d_sink = ListSink(), ListSink()
        c = self.dispatcher.connect(c_sink)
        d = self.dispatcher.connect(d_sink)
        self.send(c, commandType="gameNew")
        self.send(d, commandType="gameJoin", gameId=c_sink.last(GameCreatedEvent).game_id)
        await self.settle()
        game2 = c.game
        self.assertIsNot(game1, game2)
        self.assertEqual(game2.status, "active")

        holder1, _ = self.holder_and_other(game1)
        holder2 = game2.current_turn
        self.send(holder1, commandType="bouy", position={"x": 4, "y": 4})
        self.send(holder2, commandType="bouy", position={"x": 4, "y": 4})
        await self.settle()
        self.assertEqual(len(game1.entities.bouys), 1)
        self.assertEqual(len(game2.entities.bouys), 1)

    async def test_join_queued_before_disconnect_is_dropped(self):
        self.send(self.a, commandType="gameNew")
        game = self.a.game
        self.send(self.b, commandType="gameJoin", gameId=game.game_id)
        self.dispatcher.disconnect(self.b)
        await self.settle()
        self.assertEqual(game.status, "waiting")
        self.assertEqual(game.players, [self.a])
        self.assertIsNone(self.b.game)
        self.assertEqual(self.sink_a.of_type(GameStartEvent), [])

        # the game is still open to someone who is connected
        c_sink = ListSink()
        c = self.dispatcher.connect(c_sink)
        self.send(c, commandType="gameJoin", gameId=game.game_id)
        await self.settle()
        self.assertEqual(game.status, "active")
        self.assertEqual(game.players, [self.a, c])

    async def test_removed_games_release_their_actors(self):
        for _ in range(5):
            self.send(self.a, commandType="gameNew")
            game = self.a.game
            self.send(self.a, commandType="gameLeave")
            actor = self.directory.actor_for(game, self.dispatcher.apply)
            await actor.wait_stopped()
            self.assertNotIn(game, self.directory)
        await asyncio.sleep(0)
        self.assertEqual(len(self.directory), 0)
        self.assertEqual(self.directory.retired_actors, 0)

    async def test_new_game_is_not_applied_inside_a_game(self):
        game = await self.start_game()
        self.dispatcher.apply(game, self.a, NewGameCommand())
        self.assertEqual(_errors(self.sink_a), ["invalid_command"])
        self.assertIs(self.a.game, game)


if __name__ == '__main__':
    unittest.main()
