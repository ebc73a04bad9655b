"""Energy accounting and brownout allocation."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Tuple

from config import BLOCKED
from factory.entities import EnergySnapshot, Generator, Machine

logger = logging.getLogger(__name__)


def draws_power(machine: Machine) -> bool:
    return machine.enabled and machine.recipe_id is not None and machine.status != BLOCKED


def calculate_energy(machines: Iterable[Machine], generators: Iterable[Generator]) -> EnergySnapshot:
    produced = sum(generator.energy_output for generator in generators)
    consumed = sum(machine.energy_draw for machine in machines if draws_power(machine))
    return EnergySnapshot(produced=produced, consumed=consumed)


def allocate_power(
    machines: Tuple[Machine, ...], generators: Tuple[Generator, ...]
) -> Tuple[Tuple[Machine, ...], EnergySnapshot]:
    """Block machines until demand fits supply.

    The newest machines are shed first, so the same factory always browns out
    the same way.  Returns the updated machines and the recomputed snapshot.
    """
    energy = calculate_energy(machines, generators)
    if energy.consumed <= energy.produced:
        return machines, energy

    deficit = energy.consumed - energy.produced
    updated = list(machines)
    for index in range(len(updated) - 1, -1, -1):
        if deficit <= 0:
            break
        machine = updated[index]
        if draws_power(machine):
            updated[index] = replace(machine, status=BLOCKED)
            deficit -= machine.energy_draw
            logger.info("Machine %s blocked: energy shortage", machine.id)

    machines = tuple(updated)
    return machines, calculate_energy(machines, generators)
