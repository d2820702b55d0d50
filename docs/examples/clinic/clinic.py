"""Model a walk-in clinic.

Patients arrive at reception, wait in the waiting room and then see one of
the clinic's doctors before leaving. The waiting room has limited seats;
patients who find it full walk away and are counted as lost.

The number of doctors and the arrival rate are good candidates for
multi-factor runs, e.g.::

    python clinic.py --factor exam.resourceCount "1, 2, 3"

"""
from argparse import ArgumentParser
from pprint import pprint

from flowsim.config import apply_user_overrides, model_config, parse_user_factors
from flowsim.model import ProcessModel
from flowsim.simulation import simulate, simulate_factors

model = {
    'id': 'clinic',
    'name': 'Walk-in Clinic',
    'nodes': [
        {
            'id': 'arrivals',
            'type': 'source',
            'label': 'Arrivals',
            'params': {'interArrivalTime': {'type': 'exponential', 'mean': 6}},
        },
        {
            'id': 'waiting',
            'type': 'queue',
            'label': 'Waiting room',
            'params': {'capacity': 12, 'discipline': 'FIFO'},
        },
        {
            'id': 'exam',
            'type': 'process',
            'label': 'Examination',
            'params': {
                'serviceTime': {
                    'type': 'triangular',
                    'min': 5,
                    'mode': 10,
                    'max': 25,
                },
                'resourceCount': 2,
                'name': 'Doctor',
            },
        },
        {'id': 'exit', 'type': 'sink', 'label': 'Exit', 'params': {}},
    ],
    'edges': [
        {'id': 'e1', 'from': 'arrivals', 'to': 'waiting'},
        {'id': 'e2', 'from': 'waiting', 'to': 'exam'},
        {'id': 'e3', 'from': 'exam', 'to': 'exit'},
    ],
    'config': {
        'seed': 1234,
        'duration': 600,
        'timeUnit': 'min',
        'warmupPeriod': 60,
    },
}


if __name__ == '__main__':
    config = {
        'sim.dot.colorscheme': 'blues5',
        'sim.dot.enable': True,
        'sim.log.enable': True,
        'sim.log.level': 'INFO',
        'sim.progress.enable': False,
        'sim.result.file': 'result.json',
        'sim.vcd.dump_file': 'sim.vcd',
        'sim.vcd.enable': True,
        'sim.workspace': 'workspace',
    }

    parser = ArgumentParser()
    parser.add_argument(
        '--set',
        '-s',
        nargs=2,
        metavar=('KEY', 'VALUE'),
        action='append',
        default=[],
        dest='config_overrides',
        help='Override config KEY with VALUE expression',
    )
    parser.add_argument(
        '--factor',
        '-f',
        nargs=2,
        metavar=('KEYS', 'VALUES'),
        action='append',
        default=[],
        dest='factors',
        help='Add multi-factor VALUES for KEY(S)',
    )
    args = parser.parse_args()
    model_config(config, ProcessModel.from_dict(model))
    apply_user_overrides(config, args.config_overrides)
    factors = parse_user_factors(config, args.factors)
    if factors:
        for result in simulate_factors(config, factors, model):
            pprint(result['sim.result']['summary'])
    else:
        result = simulate(config, model)
        pprint(result['sim.result']['summary'])
