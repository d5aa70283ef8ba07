import unittest

import os
import sys

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from schurlas.backsolve import cdiv, eigenvector, eigenvectors, normalize_columns
from schurlas.errors import InvalidIndexError
from schurlas.francis import iterate_to_schur
from schurlas.householder import reduce_to_hessenberg
from schurlas.schur import extract_eigenvalues


def block_d(real: np.ndarray, imag: np.ndarray) -> np.ndarray:
    D = np.diag(real)
    for i, im in enumerate(imag):
        if im > 0:
            D[i, i + 1] = im
        elif im < 0:
            D[i, i - 1] = im
    return D


class TestCdiv(unittest.TestCase):
    def test_matches_complex_division(self) -> None:
        rng = np.random.default_rng(8)
        for _ in range(50):
            xr, xi, yr, yi = rng.standard_normal(4)
            re, im = cdiv(xr, xi, yr, yi)
            expected = complex(xr, xi) / complex(yr, yi)
            self.assertAlmostEqual(re, expected.real, places=12)
            self.assertAlmostEqual(im, expected.imag, places=12)

    def test_pure_imaginary_divisor(self) -> None:
        self.assertEqual(cdiv(1.0, 0.0, 0.0, 1.0), (0.0, -1.0))

    def test_no_overflow_for_huge_operands(self) -> None:
        re, im = cdiv(1e300, 1e300, 1e300, 1e300)
        self.assertAlmostEqual(re, 1.0)
        self.assertAlmostEqual(im, 0.0)
        re, im = cdiv(1e-300, 0.0, 1e-300, 1e-300)
        self.assertAlmostEqual(re, 0.5)
        self.assertAlmostEqual(im, -0.5)


class TestEigenvectors(unittest.TestCase):
    def _schur(self, A: np.ndarray):
        H, Q = reduce_to_hessenberg(A)
        iterate_to_schur(H, Q)
        return H, Q

    def test_reconstruction_random(self) -> None:
        rng = np.random.default_rng(31)
        for n in (1, 2, 3, 5, 9, 20):
            with self.subTest(n=n):
                A = rng.standard_normal((n, n))
                T, Q = self._schur(A)
                V = eigenvectors(T, Q)
                real, imag = extract_eigenvalues(T)
                D = block_d(real, imag)
                self.assertLess(np.linalg.norm(A @ V - V @ D) / np.linalg.norm(A), 1e-12)

    def test_columns_unit_norm(self) -> None:
        rng = np.random.default_rng(4)
        A = rng.standard_normal((10, 10))
        T, Q = self._schur(A)
        V = eigenvectors(T, Q)
        _, imag = extract_eigenvalues(T)
        i = 0
        while i < 10:
            width = 2 if imag[i] != 0.0 else 1
            self.assertAlmostEqual(np.linalg.norm(V[:, i : i + width]), 1.0, places=12)
            i += width

    def test_rotation_pair(self) -> None:
        T = np.array([[0.0, -1.0], [1.0, 0.0]])
        V = eigenvectors(T, np.eye(2))
        v = V[:, 0] + 1j * V[:, 1]
        np.testing.assert_allclose(T @ v, 1j * v, atol=1e-15)

    def test_repeated_eigenvalue_does_not_divide_by_zero(self) -> None:
        # Jordan block: w = T[i,i] - lambda vanishes in the back substitution.
        T = np.array([[2.0, 1.0, 0.0], [0.0, 2.0, 1.0], [0.0, 0.0, 2.0]])
        V = eigenvectors(T, np.eye(3))
        self.assertTrue(np.all(np.isfinite(V)))
        np.testing.assert_allclose(V[:, 0], [1.0, 0.0, 0.0])

    def test_zero_matrix_gives_identity(self) -> None:
        V = eigenvectors(np.zeros((3, 3)), np.eye(3))
        np.testing.assert_array_equal(V, np.eye(3))

    def test_inputs_not_modified(self) -> None:
        T = np.array([[1.0, 2.0], [3.0, 4.0]])
        Q = np.eye(2)
        eigenvectors(T, Q)
        np.testing.assert_array_equal(T, [[1.0, 2.0], [3.0, 4.0]])
        np.testing.assert_array_equal(Q, np.eye(2))

    def test_rejects_non_quasi_triangular(self) -> None:
        with self.assertRaises(ValueError):
            eigenvectors(np.ones((3, 3)), np.eye(3))
        with self.assertRaises(ValueError):
            eigenvectors(np.eye(3), np.eye(2))


class TestSingleEigenvector(unittest.TestCase):
    def setUp(self) -> None:
        # 1x1 block at 0, complex pair at 1..2, 1x1 block at 3
        self.T = np.array(
            [
                [3.0, 0.5, -1.0, 0.2],
                [0.0, 1.0, -2.0, 0.7],
                [0.0, 3.0, 1.0, 0.1],
                [0.0, 0.0, 0.0, -1.0],
            ]
        )
        rng = np.random.default_rng(12)
        self.Q = np.linalg.qr(rng.standard_normal((4, 4)))[0]
        self.A = self.Q @ self.T @ self.Q.T

    def test_matches_full_solve(self) -> None:
        V = eigenvectors(self.T, self.Q)
        re, im = eigenvector(self.T, self.Q, 0)
        np.testing.assert_allclose(re, V[:, 0], atol=1e-14)
        np.testing.assert_array_equal(im, 0.0)

        re, im = eigenvector(self.T, self.Q, 1)
        np.testing.assert_allclose(re, V[:, 1], atol=1e-14)
        np.testing.assert_allclose(im, V[:, 2], atol=1e-14)

    def test_complex_eigenvector_satisfies_eigen_equation(self) -> None:
        re, im = eigenvector(self.T, self.Q, 1)
        lam = 1.0 + 1j * np.sqrt(6.0)
        v = re + 1j * im
        np.testing.assert_allclose(self.A @ v, lam * v, atol=1e-12)

    def test_invalid_indices(self) -> None:
        for index in (-1, 4, 2):
            with self.subTest(index=index):
                with self.assertRaises(InvalidIndexError) as ctx:
                    eigenvector(self.T, self.Q, index)
                self.assertEqual(ctx.exception.index, index)
                self.assertIsInstance(ctx.exception, IndexError)


class TestNormalize(unittest.TestCase):
    def test_pair_scaled_jointly_and_flushed(self) -> None:
        V = np.array([[3.0, 4.0, 2.0], [0.0, 0.0, 1e-20]])
        normalize_columns(V, np.array([1.0, -1.0, 0.0]))
        np.testing.assert_allclose(V[:, :2], [[0.6, 0.8], [0.0, 0.0]])
        np.testing.assert_array_equal(V[:, 2], [1.0, 0.0])


if __name__ == "__main__":
    unittest.main()
