import contextlib
import io
import os
import tempfile
import unittest

import numpy as np

from kmseg import cli
from kmseg.data_loader import load_image, save_image
from kmseg.kmeans import PixelBuffer


class CliTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.input_path = os.path.join(self._tmp.name, 'in.png')
        rng = np.random.default_rng(0)
        image = rng.integers(0, 256, size=(12, 10, 3), dtype=np.uint8)
        save_image(self.input_path, PixelBuffer.from_array(image))

    def tearDown(self):
        self._tmp.cleanup()

    def _run(self, *args):
        stdout, stderr = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = cli.main(list(args))
        return code, stdout.getvalue(), stderr.getvalue()

    def _output(self, name='out.png'):
        return os.path.join(self._tmp.name, name)

    def test_serial_run(self):
        code, out, _ = self._run('-i', self.input_path, '-o', self._output(),
                                 '-k', '3', '-d')
        self.assertEqual(code, 0)
        self.assertIn('EXECUTION DETAILS', out)
        self.assertIn('Number of pixels        : 120', out)
        self.assertIn('Programming paradigm    : serial', out)

        buffer = load_image(self._output())
        self.assertLessEqual(len(np.unique(buffer.pixels, axis=0)), 3)

    def test_omp_alias_runs_parallel(self):
        code, out, _ = self._run('-i', self.input_path, '-o', self._output(),
                                 '-k', '3', '-p', 'omp', '-t', '2', '-s', '7')
        self.assertEqual(code, 0)
        self.assertIn('Programming paradigm    : parallel', out)
        self.assertIn('Number of threads       : 2', out)

    def test_debug_runs_are_reproducible(self):
        self._run('-i', self.input_path, '-o', self._output('a.png'), '-k', '4', '-d')
        self._run('-i', self.input_path, '-o', self._output('b.png'), '-k', '4', '-d')
        np.testing.assert_array_equal(load_image(self._output('a.png')).data,
                                      load_image(self._output('b.png')).data)

    def test_cuda_is_reported(self):
        code, _, err = self._run('-i', self.input_path, '-o', self._output(),
                                 '-k', '3', '-p', 'cuda')
        self.assertEqual(code, 1)
        self.assertIn('not implemented', err)

    def test_missing_input(self):
        code, _, err = self._run('-i', self._output('nope.png'), '-o', self._output(), '-k', '3')
        self.assertEqual(code, 1)
        self.assertIn('ERROR LOADING IMAGE', err)

    def test_unsupported_output(self):
        code, _, err = self._run('-i', self.input_path, '-o', self._output('out.gif'), '-k', '3')
        self.assertEqual(code, 1)
        self.assertIn('ERROR SAVING IMAGE', err)

    def test_unwritable_output(self):
        output = os.path.join(self._tmp.name, 'nodir', 'out.png')
        code, out, err = self._run('-i', self.input_path, '-o', output, '-k', '2', '-d')
        self.assertEqual(code, 1)
        self.assertIn('ERROR SAVING IMAGE', err)
        self.assertNotIn('EXECUTION DETAILS', out)

    def test_too_many_clusters(self):
        code, _, err = self._run('-i', self.input_path, '-o', self._output(), '-k', '500')
        self.assertEqual(code, 1)
        self.assertIn('500 clusters', err)

    def test_invalid_arguments(self):
        for args in (['-k', '1'], ['-m', '0'], ['-t', '0'], ['-p', 'opencl']):
            with self.subTest(args=args):
                with self.assertRaises(SystemExit) as ctx:
                    self._run('-i', self.input_path, '-o', self._output(), *args)
                self.assertEqual(ctx.exception.code, 2)


if __name__ == '__main__':
    unittest.main()
