# .keydeck.py
#
# keydeck calls configure() with the root menu when it starts in this directory.

from keydeck import conditions


def configure(menu):
    menu.action('List files').shell('ls -la')
    menu.action('Disk usage').description('Size of this directory').shell('du -sh .')

    menu.action('Greet') \
        .prompt('name', 'Your name') \
        .shell('echo "Hello, {{name}}!"')

    menu.action('Git status') \
        .condition(conditions.file_exists('.git')) \
        .shell('git status')

    menu.category('Tools').description('A few handy commands').content(tools)


def tools(node):
    node.action('Date').shell('date')
    node.action('Uptime').shell('uptime')
