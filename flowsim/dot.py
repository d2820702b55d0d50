"""Generate graphical representation of process models.

A process model's nodes and edges can be represented graphically using the
`Graphviz`_ `DOT language`_. :func:`model_to_dot()` produces a DOT language
string; when given the result of a run, each node's label also shows its
key metrics and bottleneck nodes are highlighted.

The ``dot`` program from `Graphviz`_ may be used to render the generated DOT
language description::

    dot -Tpng -o model.png model.dot

.. _Graphviz: http://graphviz.org/
.. _DOT language: http://graphviz.org/content/dot-language

"""
from html import escape

_shapes = {
    'source': 'invhouse',
    'queue': 'cds',
    'process': 'box',
    'sink': 'house',
}

# Fill color index of each node type within a Brewer color scheme.
_color_index = {
    'source': 1,
    'queue': 2,
    'process': 3,
    'sink': 4,
}

_bottleneck_color = 'firebrick3'


def generate_dot(model, config, result=None):
    """Generate a dot file based on 'sim.dot' configuration.

    The ``sim.dot.enable`` configuration controls whether any dot file
    generation is performed. The remaining ``sim.dot`` configuration items have
    no effect unless ``sim.dot.enable`` is ``True``.

    The ``sim.dot.colorscheme`` configuration controls the colorscheme used in
    the generated DOT file and ``sim.dot.file`` names the file. See
    :func:`model_to_dot` for more detail.

    :param model: The :class:`~flowsim.model.ProcessModel` to render.
    :param dict config: Configuration dictionary.
    :param result:
        Optional :class:`~flowsim.result.SimResult` whose metrics are shown.

    """
    enable = config.setdefault('sim.dot.enable', False)
    colorscheme = config.setdefault('sim.dot.colorscheme', '')
    filename = config.setdefault('sim.dot.file', 'model.dot')

    if not enable or not filename:
        return

    with open(filename, 'w') as dot_file:
        dot_file.write(model_to_dot(model, result, colorscheme=colorscheme))


def model_to_dot(model, result=None, colorscheme=''):
    """Produce a DOT language string from a process model.

    :param model: The :class:`~flowsim.model.ProcessModel` to render.
    :param result:
        Optional :class:`~flowsim.result.SimResult`. When given, node labels
        include utilization, average queue length and processed counts, and
        bottleneck nodes are outlined.
    :param str colorscheme:
        One of the `Brewer color schemes`_ supported by graphviz, e.g. "set38"
        or "pastel14". Each node type is filled with a different color from the
        scheme; the scheme needs at least four colors.
    :returns str: DOT language representation of the model graph.

    .. _Brewer color schemes: http://graphviz.org/content/color-names#brewer

    """
    indent = '    '
    bottlenecks = set()
    if result is not None:
        bottlenecks = {b.node_id for b in result.bottlenecks}
    lines = [f'strict digraph "{_quote(model.name)}" {{', indent + 'rankdir=LR;']
    for node in model.nodes:
        attrs = {
            'shape': _shapes.get(node.type, 'ellipse'),
            'label': f'<{_node_label(node, result)}>',
        }
        style = ['rounded'] if node.type == 'process' else []
        if colorscheme:
            style.append('filled')
            attrs['fillcolor'] = f'"/{colorscheme}/{_color_index[node.type]}"'
        if node.id in bottlenecks:
            style.append('bold')
            attrs['color'] = _bottleneck_color
            attrs['penwidth'] = '2'
        if style:
            attrs['style'] = f'"{",".join(style)}"'
        lines.append(f'{indent}"{_quote(node.id)}" [{_join_attrs(attrs)}];')
    lines.append('')
    for edge in model.edges:
        lines.append(
            f'{indent}"{_quote(edge.from_id)}" -> "{_quote(edge.to_id)}";'
        )
    lines.append('}')
    return '\n'.join(lines)


def _node_label(node, result):
    name = node.label or (
        node.params.name if node.type == 'process' else node.id
    )
    label_lines = [f'<b>{escape(name)}</b>']
    params = node.params
    if node.type == 'source':
        label_lines.append(_dist_text(params.inter_arrival_time))
    elif node.type == 'queue':
        capacity = params.capacity if params.capacity else '&#8734;'
        label_lines.append(f'{params.discipline} cap={capacity}')
    elif node.type == 'process':
        label_lines.append(
            f'{_dist_text(params.service_time)} x{params.resource_count}'
        )
    if result is not None and node.id in result.node_metrics:
        metrics = result.node_metrics[node.id]
        if node.type == 'process':
            label_lines.append(f'<i>util {metrics.utilization:.0%}</i>')
        if node.type in ('queue', 'process'):
            label_lines.append(f'<i>avg queue {metrics.avg_queue_length:.2f}</i>')
        label_lines.append(f'<i>{metrics.processed} processed</i>')
    return '<br/>'.join(label_lines)


def _dist_text(dist):
    args = ', '.join(f'{v:g}' for v in dist)
    return f'{dist.kind}({args})'


def _quote(text):
    return str(text).replace('\\', '\\\\').replace('"', '\\"')


def _join_attrs(attrs):
    return ','.join(f'{k}={v}' for k, v in sorted(attrs.items()))
