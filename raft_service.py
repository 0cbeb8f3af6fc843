"""
Raft Control Service
Exposes the engine's control surface over gRPC so an external UI process
can drive the simulation. Requests and responses are protobuf
``google.protobuf.Struct`` messages carried through grpc generic handlers.
"""

import logging
import threading
from concurrent import futures
from typing import Any, Dict, Tuple

import grpc
from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct

from raft_engine import ConsensusEngine

logger = logging.getLogger(__name__)

SERVICE_NAME = "raftsim.ControlSurface"
METHODS = (
    "Step",
    "ClientRequest",
    "SetNodeAlive",
    "SetPartition",
    "HealPartition",
    "Reset",
    "Snapshot",
)


def _restore_ints(value: Any) -> Any:
    # Struct stores every number as a double
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _restore_ints(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_restore_ints(v) for v in value]
    return value


def to_struct(message: Dict[str, Any]) -> Struct:
    return json_format.ParseDict(message, Struct())


def from_struct(struct: Struct) -> Dict[str, Any]:
    return _restore_ints(json_format.MessageToDict(struct))


class ControlService:
    """gRPC servicer wrapping one ConsensusEngine.

    RPCs run on a thread pool; the engine is single-threaded, so every
    call holds ``self.lock``.
    """

    def __init__(self, engine: ConsensusEngine):
        self.engine = engine
        self.lock = threading.RLock()

    def Step(self, request: Dict[str, Any], context) -> Dict[str, Any]:
        ticks = request.get("ticks", 1)
        if isinstance(ticks, bool) or not isinstance(ticks, int) or ticks < 1:
            context.abort(grpc.StatusCode.INVALID_ARGUMENT, f"ticks must be a positive integer, got {ticks!r}")
        with self.lock:
            events = self.engine.run(ticks)
            return {"tick": self.engine.tick, "events": [e.to_dict() for e in events]}

    def ClientRequest(self, request: Dict[str, Any], context) -> Dict[str, Any]:
        command = request.get("command")
        if command is not None and not isinstance(command, str):
            context.abort(grpc.StatusCode.INVALID_ARGUMENT, f"command must be a string, got {command!r}")
        with self.lock:
            accepted, leader_id = self.engine.client_request(command)
        return {"accepted": accepted, "leader_id": leader_id}

    def SetNodeAlive(self, request: Dict[str, Any], context) -> Dict[str, Any]:
        node_id = request.get("node_id")
        alive = request.get("alive", True)
        if not isinstance(node_id, str) or not isinstance(alive, bool):
            context.abort(grpc.StatusCode.INVALID_ARGUMENT, "node_id must be a string and alive a boolean")
        with self.lock:
            try:
                changed = self.engine.set_node_alive(node_id, alive)
            except ValueError as e:
                context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))
        return {"changed": changed}

    def SetPartition(self, request: Dict[str, Any], context) -> Dict[str, Any]:
        group_a = request.get("group_a", [])
        if not isinstance(group_a, list) or not all(isinstance(n, str) for n in group_a):
            context.abort(grpc.StatusCode.INVALID_ARGUMENT, "group_a must be a list of node ids")
        with self.lock:
            try:
                partition = self.engine.set_partition(group_a)
            except ValueError as e:
                context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))
            group_a, group_b = partition.ordered(self.engine.config.node_ids)
        return {"group_a": list(group_a), "group_b": list(group_b)}

    def HealPartition(self, request: Dict[str, Any], context) -> Dict[str, Any]:
        with self.lock:
            healed = self.engine.heal_partition()
        return {"healed": healed}

    def Reset(self, request: Dict[str, Any], context) -> Dict[str, Any]:
        with self.lock:
            self.engine.reset()
            return {"tick": self.engine.tick}

    def Snapshot(self, request: Dict[str, Any], context) -> Dict[str, Any]:
        with self.lock:
            return self.engine.snapshot().to_dict()

    def _unary(self, method):
        def handler(request: Struct, context) -> Struct:
            return to_struct(method(from_struct(request), context))
        return handler

    def generic_handler(self) -> grpc.GenericRpcHandler:
        handlers = {
            name: grpc.unary_unary_rpc_method_handler(
                self._unary(getattr(self, name)),
                request_deserializer=Struct.FromString,
                response_serializer=Struct.SerializeToString,
            )
            for name in METHODS
        }
        return grpc.method_handlers_generic_handler(SERVICE_NAME, handlers)


def serve(
    engine: ConsensusEngine,
    port: int = 0,
    host: str = "127.0.0.1",
    max_workers: int = 10,
) -> Tuple[grpc.Server, int]:
    """Start the control service. Port 0 picks a free port; the bound port is returned."""
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=max_workers))
    server.add_generic_rpc_handlers((ControlService(engine).generic_handler(),))
    bound_port = server.add_insecure_port(f"{host}:{port}")
    server.start()
    logger.info("control service listening on %s:%d", host, bound_port)
    return server, bound_port


def run_forever(engine: ConsensusEngine, port: int, host: str = "127.0.0.1"):
    """Serve until interrupted."""
    server, _ = serve(engine, port, host)
    try:
        server.wait_for_termination()
    except KeyboardInterrupt:
        server.stop(0)
