"""create-itk-app: scaffold a React app wired up with itk.js and vtk.js.

Runs create-react-app, installs craco with the itk.js / vtk.js plugins,
rewrites ``package.json``, writes ``craco.config.js`` and a starter
``src/App.js``, and commits the result.
"""

__version__ = "1.0.0"
